"""
Connectivity check for the UDISE data API.

Run this before starting the Streamlit app to confirm the API is reachable
and, optionally, that a set of credentials can sign in.

Usage:
    python scripts/check_api.py [email password]
"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from udise_dashboard.api_client import ApiClient, ApiError
from udise_dashboard.config import API_BASE_URL
from udise_dashboard.models import HierarchicalFilter, QueryFilter
from udise_dashboard.session import MemoryTokenStore, Session

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def check_api(email=None, password=None):
    """Sign in (if credentials are given) and hit each read endpoint once."""
    client = ApiClient(Session(MemoryTokenStore()))
    print(f"Target API: {API_BASE_URL}\n")

    if email and password:
        print(f"[auth] Signing in as {email}")
        try:
            auth = client.login(email, password)
            print(f"  ✓ Signed in (role: {auth.user.role})\n")
        except ApiError as e:
            print(f"  ✗ Failed: {e.message}\n")
            return False

    checks = [
        ("filters", lambda: f"{len(client.get_filter_options(HierarchicalFilter()).states)} states"),
        ("distribution", lambda: f"{len(client.get_distribution(HierarchicalFilter()).management_type)} management types"),
        ("records", lambda: f"{client.list_schools(QueryFilter(limit=1)).pagination.total_records} schools"),
    ]

    ok = True
    for idx, (name, check) in enumerate(checks, 1):
        print(f"[{idx}/{len(checks)}] {name}")
        try:
            print(f"  ✓ {check()}\n")
        except ApiError as e:
            status = f" (HTTP {e.status_code})" if e.status_code else ""
            print(f"  ✗ {type(e).__name__}{status}: {e.message}\n")
            ok = False

    if client.session.is_authenticated:
        client.logout()

    print("🎉 API ready! Start the dashboard with: streamlit run app/streamlit_app.py" if ok
          else "❌ Some checks failed. Set UDISE_API_URL if the API runs elsewhere.")
    return ok


if __name__ == "__main__":
    print("=" * 70)
    print("UDISE API Connectivity Check")
    print("=" * 70 + "\n")
    args = sys.argv[1:]
    success = check_api(*args[:2]) if len(args) >= 2 else check_api()
    sys.exit(0 if success else 1)
