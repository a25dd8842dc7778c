"""
Create / edit / delete flows for school records.

SchoolForm holds the editable values and validates them locally.
FormSubmission and DeleteConfirmation track one request each: they refuse
to submit twice while a request is in flight, invalidate the cached
queries on success, and keep the user's input plus the server message on
failure.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from . import queries
from .api_client import ApiClient, ApiError, AuthenticationError, ValidationError
from .models import LOCATION_TYPES, MANAGEMENT_TYPES, SCHOOL_TYPES, School

# Configure logging
logger = logging.getLogger(__name__)


REQUIRED_FIELDS = {
    'udise_code': 'UDISE code is required',
    'school_name': 'School name is required',
    'state': 'State is required',
    'district': 'District is required',
    'block': 'Block is required',
    'village': 'Village is required',
    'management': 'Management type is required',
    'location': 'Location is required',
    'school_type': 'School type is required',
}

CHOICES = {
    'management': MANAGEMENT_TYPES,
    'location': LOCATION_TYPES,
    'school_type': SCHOOL_TYPES,
}

COUNT_FIELDS = ('total_students', 'total_teachers')

GENERIC_ERROR = 'An error occurred'


def _coerce_count(value: Any) -> Tuple[Optional[int], Optional[str]]:
    """Parse a count field. Returns (value, error message)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, None
    if isinstance(value, bool):
        return None, 'Must be a number'
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None, 'Must be a number'
    if not math.isfinite(number):
        return None, 'Must be a number'
    if number != int(number):
        return None, 'Must be a whole number'
    if number < 0:
        return None, 'Must be 0 or more'
    return int(number), None


@dataclass
class SchoolForm:
    udise_code: str = ''
    school_name: str = ''
    state: str = ''
    district: str = ''
    block: str = ''
    village: str = ''
    management: str = 'Government'
    location: str = 'Rural'
    school_type: str = 'Co-Ed'
    total_students: Any = 0
    total_teachers: Any = 0
    school_id: Optional[str] = field(default=None, compare=False)

    @classmethod
    def defaults(cls) -> 'SchoolForm':
        return cls()

    @classmethod
    def from_school(cls, school: School) -> 'SchoolForm':
        return cls(
            udise_code=school.udise_code,
            school_name=school.school_name,
            state=school.state,
            district=school.district,
            block=school.block,
            village=school.village,
            management=school.management,
            location=school.location,
            school_type=school.school_type,
            total_students=school.total_students or 0,
            total_teachers=school.total_teachers or 0,
            school_id=school.id,
        )

    @property
    def is_editing(self) -> bool:
        return self.school_id is not None

    @property
    def title(self) -> str:
        return 'Edit School' if self.is_editing else 'Add New School'

    @property
    def submit_label(self) -> str:
        return 'Update School' if self.is_editing else 'Add School'

    def is_read_only(self, name: str) -> bool:
        # UDISE code identifies the record and cannot change once created
        return name == 'udise_code' and self.is_editing

    def validate(self) -> Dict[str, str]:
        """Per-field error messages; empty when the form can be submitted."""
        errors: Dict[str, str] = {}
        for name, message in REQUIRED_FIELDS.items():
            if not str(getattr(self, name) or '').strip():
                errors[name] = message

        for name, allowed in CHOICES.items():
            value = getattr(self, name)
            if name not in errors and value not in allowed:
                errors[name] = f"Choose one of: {', '.join(allowed)}"

        for name in COUNT_FIELDS:
            _, error = _coerce_count(getattr(self, name))
            if error:
                errors[name] = error
        return errors

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload.pop('school_id')
        for name in REQUIRED_FIELDS:
            payload[name] = str(payload[name]).strip()
        for name in COUNT_FIELDS:
            payload[name], _ = _coerce_count(payload[name])
            if payload[name] is None:
                payload.pop(name)
        return payload


class _Request:
    """Shared in-flight / error bookkeeping."""

    def __init__(self):
        self.in_flight = False
        self.error: Optional[str] = None
        self.field_errors: Dict[str, str] = {}

    @property
    def can_submit(self) -> bool:
        return not self.in_flight

    def _fail(self, error: ApiError) -> None:
        self.error = error.message or GENERIC_ERROR
        if isinstance(error, ValidationError):
            self.field_errors = error.field_errors
        logger.error(f"{type(self).__name__} failed: {self.error}")


class FormSubmission(_Request):

    def __init__(self):
        super().__init__()
        self.result: Optional[School] = None

    @property
    def can_submit(self) -> bool:
        return not self.in_flight and self.result is None

    def submit(self, client: ApiClient, form: SchoolForm) -> Optional[School]:
        """
        Validate and send the form.

        Returns the saved School, or None when validation or the request
        failed (see ``error`` / ``field_errors``). AuthenticationError
        propagates so the app can return to the login page.

        ``in_flight`` only covers re-entrant calls inside one script run.
        A queued second click arrives in a later run, so once a save has
        succeeded the same submission refuses to send again.
        """
        if not self.can_submit:
            logger.warning("Submission ignored: already in flight or already saved")
            return None

        self.error = None
        self.field_errors = form.validate()
        if self.field_errors:
            return None

        self.in_flight = True
        try:
            if form.is_editing:
                school = client.update_school(form.school_id, form.to_payload())
            else:
                school = client.create_school(form.to_payload())
        except AuthenticationError:
            raise
        except ApiError as e:
            self._fail(e)
            return None
        finally:
            self.in_flight = False

        queries.invalidate_all()
        self.result = school
        logger.info(f"Saved school {school.udise_code}")
        return school


class DeleteConfirmation(_Request):

    def __init__(self, school: School):
        super().__init__()
        self.school = school
        self.deleted = False

    @property
    def prompt(self) -> str:
        return (
            f'Are you sure you want to delete "{self.school.school_name}"? '
            'This action cannot be undone.'
        )

    def confirm(self, client: ApiClient) -> bool:
        if self.in_flight or self.deleted:
            return False

        self.error = None
        self.in_flight = True
        try:
            client.delete_school(self.school.id)
        except AuthenticationError:
            raise
        except ApiError as e:
            self._fail(e)
            return False
        finally:
            self.in_flight = False

        queries.invalidate_all()
        self.deleted = True
        logger.info(f"Deleted school {self.school.udise_code}")
        return True


# ============================================================================
# Read-only details
# ============================================================================

def format_date(value: Optional[str]) -> str:
    """ISO timestamp -> '15 January 2024'."""
    if not value:
        return 'N/A'
    try:
        ts = pd.to_datetime(value)
    except (ValueError, TypeError):
        return str(value)
    if pd.isna(ts):
        return 'N/A'
    return f"{ts.day} {ts.strftime('%B %Y')}"


def _yes_no(flag: bool) -> str:
    return 'Yes' if flag else 'No'


def _or_na(value: Any) -> str:
    return 'N/A' if value is None or value == '' else str(value)


def school_details(school: School) -> List[Tuple[str, List[Tuple[str, str]]]]:
    """Labelled sections for the details view."""
    infra = school.infrastructure
    perf = school.academic_performance
    contact = school.contact_info
    coords = school.coordinates

    sections = [
        ('Basic Information', [
            ('School Name', school.school_name),
            ('UDISE Code', school.udise_code),
            ('Management', school.management),
            ('School Type', school.school_type),
            ('Established', _or_na(school.establishment_year)),
            ('Status', 'Active' if school.is_active else 'Inactive'),
        ]),
        ('Location', [
            ('State', school.state),
            ('District', school.district),
            ('Block', school.block),
            ('Village', school.village),
            ('Area', school.location),
        ]),
        ('Statistics', [
            ('Total Students', _or_na(school.total_students)),
            ('Total Teachers', _or_na(school.total_teachers)),
            ('Pass Percentage', _or_na(perf.pass_percentage)),
            ('Dropout Rate', _or_na(perf.dropout_rate)),
        ]),
        ('Infrastructure', [
            ('Electricity', _yes_no(infra.has_electricity)),
            ('Drinking Water', _yes_no(infra.has_drinking_water)),
            ('Toilets', _yes_no(infra.has_toilets)),
            ('Library', _yes_no(infra.has_library)),
            ('Computer Lab', _yes_no(infra.has_computer_lab)),
        ]),
        ('Contact', [
            ('Phone', _or_na(contact.phone)),
            ('Email', _or_na(contact.email)),
            ('Website', _or_na(contact.website)),
            ('Coordinates', (
                f"{coords.latitude}, {coords.longitude}"
                if coords.latitude is not None and coords.longitude is not None
                else 'N/A'
            )),
        ]),
        ('Record', [
            ('Created', format_date(school.created_at)),
            ('Last Updated', format_date(school.updated_at)),
        ]),
    ]
    return sections
