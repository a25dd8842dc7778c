"""
Data model for the UDISE dashboard.

Typed records for everything that crosses the API boundary:
- HierarchicalFilter / QueryFilter - validated location + search + page selection
- School and its nested detail blocks
- DistributionItem / DistributionData - server-side category counts
- FilterOptions - dropdown values for each location level
- PaginationInfo / SchoolPage - one page of records
- User / AuthResult - session identity

Server payloads use camelCase and occasionally wrap values in extra keys;
the ``from_dict`` constructors absorb those differences so the rest of the
package only sees these dataclasses.
"""

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

from .config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


# Location hierarchy, outermost first
LOCATION_LEVELS = ('state', 'district', 'block', 'village')

MANAGEMENT_TYPES = (
    'Government',
    'Private Unaided',
    'Private Aided',
    'Central Government',
    'Other',
)
LOCATION_TYPES = ('Rural', 'Urban')
SCHOOL_TYPES = ('Co-Ed', 'Girls', 'Boys')


class FilterValidationError(ValueError):
    """Raised when a filter combination cannot be sent to the API."""


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ============================================================================
# Filters
# ============================================================================

@dataclass(frozen=True)
class HierarchicalFilter:
    """
    Location selection: state ⊇ district ⊇ block ⊇ village.

    A level may only be set when every level above it is set. Blank values
    are normalized to None before the check.
    """
    state: Optional[str] = None
    district: Optional[str] = None
    block: Optional[str] = None
    village: Optional[str] = None

    def __post_init__(self):
        for level in LOCATION_LEVELS:
            object.__setattr__(self, level, _clean_text(getattr(self, level)))

        first_missing = None
        for level in LOCATION_LEVELS:
            if getattr(self, level) is None:
                first_missing = first_missing or level
            elif first_missing is not None:
                raise FilterValidationError(
                    f"Cannot filter by {level} without selecting a {first_missing}"
                )

    def location(self) -> 'HierarchicalFilter':
        return HierarchicalFilter(
            state=self.state,
            district=self.district,
            block=self.block,
            village=self.village,
        )

    def location_params(self) -> Dict[str, str]:
        return {
            level: getattr(self, level)
            for level in LOCATION_LEVELS
            if getattr(self, level) is not None
        }

    def location_key(self) -> Tuple[Optional[str], ...]:
        return tuple(getattr(self, level) for level in LOCATION_LEVELS)

    @property
    def depth(self) -> int:
        """Number of location levels selected."""
        return sum(1 for level in LOCATION_LEVELS if getattr(self, level) is not None)


@dataclass(frozen=True)
class QueryFilter(HierarchicalFilter):
    """Full records query: location, free-text search and a 1-based page cursor."""
    search: Optional[str] = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, 'search', _clean_text(self.search))

        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise FilterValidationError(f"Page must be a positive integer, got {self.page!r}")

        if (isinstance(self.limit, bool) or not isinstance(self.limit, int)
                or not 1 <= self.limit <= MAX_PAGE_SIZE):
            raise FilterValidationError(
                f"Limit must be between 1 and {MAX_PAGE_SIZE}, got {self.limit!r}"
            )

    def to_params(self) -> Dict[str, Any]:
        """Query-string parameters, omitting anything unset."""
        params: Dict[str, Any] = self.location_params()
        if self.search:
            params['search'] = self.search
        params['page'] = self.page
        params['limit'] = self.limit
        return params

    def cache_key(self) -> Tuple[Any, ...]:
        return self.location_key() + (self.search, self.page, self.limit)


# ============================================================================
# Schools
# ============================================================================

@dataclass
class Infrastructure:
    has_electricity: bool = False
    has_drinking_water: bool = False
    has_toilets: bool = False
    has_library: bool = False
    has_computer_lab: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Infrastructure':
        data = data or {}
        return cls(**{f.name: bool(data.get(f.name, False)) for f in fields(cls)})


@dataclass
class AcademicPerformance:
    pass_percentage: Optional[float] = None
    dropout_rate: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AcademicPerformance':
        data = data or {}
        return cls(
            pass_percentage=_optional_float(data.get('pass_percentage')),
            dropout_rate=_optional_float(data.get('dropout_rate')),
        )


@dataclass
class ContactInfo:
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ContactInfo':
        data = data or {}
        return cls(
            phone=_clean_text(data.get('phone')),
            email=_clean_text(data.get('email')),
            website=_clean_text(data.get('website')),
        )


@dataclass
class Coordinates:
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Coordinates':
        data = data or {}
        return cls(
            latitude=_optional_float(data.get('latitude')),
            longitude=_optional_float(data.get('longitude')),
        )


@dataclass
class School:
    """A single UDISE school record as returned by the API."""
    id: str
    udise_code: str
    school_name: str
    state: str = ''
    district: str = ''
    block: str = ''
    village: str = ''
    management: str = 'Government'
    location: str = 'Rural'
    school_type: str = 'Co-Ed'
    establishment_year: Optional[int] = None
    total_students: Optional[int] = None
    total_teachers: Optional[int] = None
    infrastructure: Infrastructure = field(default_factory=Infrastructure)
    academic_performance: AcademicPerformance = field(default_factory=AcademicPerformance)
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    coordinates: Coordinates = field(default_factory=Coordinates)
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'School':
        return cls(
            id=str(data.get('_id') or data.get('id') or ''),
            udise_code=str(data.get('udise_code', '')),
            school_name=str(data.get('school_name', '')),
            state=data.get('state') or '',
            district=data.get('district') or '',
            block=data.get('block') or '',
            village=data.get('village') or '',
            management=data.get('management') or 'Government',
            location=data.get('location') or 'Rural',
            school_type=data.get('school_type') or 'Co-Ed',
            establishment_year=_optional_int(data.get('establishment_year')),
            total_students=_optional_int(data.get('total_students')),
            total_teachers=_optional_int(data.get('total_teachers')),
            infrastructure=Infrastructure.from_dict(data.get('infrastructure')),
            academic_performance=AcademicPerformance.from_dict(data.get('academic_performance')),
            contact_info=ContactInfo.from_dict(data.get('contact_info')),
            coordinates=Coordinates.from_dict(data.get('coordinates')),
            is_active=bool(data.get('isActive', data.get('is_active', True))),
            created_at=data.get('createdAt') or data.get('created_at'),
            updated_at=data.get('updatedAt') or data.get('updated_at'),
        )


# ============================================================================
# Distributions and filter options
# ============================================================================

@dataclass(frozen=True)
class DistributionItem:
    label: str
    count: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DistributionItem':
        return cls(
            label=str(data.get('label', data.get('_id', 'Unknown'))),
            count=_optional_int(data.get('count')) or 0,
        )


@dataclass
class DistributionData:
    management_type: List[DistributionItem] = field(default_factory=list)
    location: List[DistributionItem] = field(default_factory=list)
    school_type: List[DistributionItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DistributionData':
        def items(key):
            return [DistributionItem.from_dict(item) for item in data.get(key) or []]

        return cls(
            management_type=items('managementTypeDistribution'),
            location=items('locationDistribution'),
            school_type=items('schoolTypeDistribution'),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.management_type or self.location or self.school_type)


@dataclass
class FilterOptions:
    states: List[str] = field(default_factory=list)
    districts: List[str] = field(default_factory=list)
    blocks: List[str] = field(default_factory=list)
    villages: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FilterOptions':
        def values(key):
            return [_clean_text(v) for v in data.get(key) or [] if _clean_text(v)]

        return cls(
            states=values('states'),
            districts=values('districts'),
            blocks=values('blocks'),
            villages=values('villages'),
        )

    def for_level(self, level: str) -> List[str]:
        """Option list for one location level (``'state'`` -> ``states``)."""
        if level not in LOCATION_LEVELS:
            raise ValueError(f"Unknown location level: {level}")
        return getattr(self, f"{level}s")


# ============================================================================
# Pagination
# ============================================================================

@dataclass(frozen=True)
class PaginationInfo:
    current_page: int = 1
    total_pages: int = 0
    total_records: int = 0
    has_next_page: bool = False
    has_prev_page: bool = False
    limit: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PaginationInfo':
        return cls(
            current_page=_optional_int(data.get('currentPage')) or 1,
            total_pages=_optional_int(data.get('totalPages')) or 0,
            total_records=_optional_int(data.get('totalRecords')) or 0,
            has_next_page=bool(data.get('hasNextPage', False)),
            has_prev_page=bool(data.get('hasPrevPage', False)),
            limit=_optional_int(data.get('limit')) or DEFAULT_PAGE_SIZE,
        )

    @classmethod
    def compute(cls, total_records: int, page: int, limit: int) -> 'PaginationInfo':
        """
        Derive pagination for ``total_records`` split into pages of ``limit``.

        Example:
            >>> PaginationInfo.compute(45, 3, 20).total_pages
            3
        """
        if limit < 1:
            raise ValueError(f"Limit must be positive, got {limit}")
        total_pages = math.ceil(total_records / limit) if total_records > 0 else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_records=total_records,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
            limit=limit,
        )

    def showing_range(self) -> Tuple[int, int]:
        """1-based (first, last) record numbers on the current page; (0, 0) when empty."""
        if self.total_records == 0:
            return (0, 0)
        first = (self.current_page - 1) * self.limit + 1
        last = min(self.current_page * self.limit, self.total_records)
        if first > last:
            return (0, 0)
        return (first, last)


@dataclass
class SchoolPage:
    schools: List[School] = field(default_factory=list)
    pagination: PaginationInfo = field(default_factory=PaginationInfo)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], query: Optional[QueryFilter] = None) -> 'SchoolPage':
        # Older builds return the list under "schools" instead of "data"
        raw = data.get('data')
        if not isinstance(raw, list):
            raw = data.get('schools') or []
        schools = [School.from_dict(item) for item in raw]

        if isinstance(data.get('pagination'), dict):
            pagination = PaginationInfo.from_dict(data['pagination'])
        else:
            page = query.page if query else 1
            limit = query.limit if query else DEFAULT_PAGE_SIZE
            pagination = PaginationInfo.compute(len(schools), page, limit)
        return cls(schools=schools, pagination=pagination)

    @classmethod
    def empty(cls, query: QueryFilter) -> 'SchoolPage':
        return cls(schools=[], pagination=PaginationInfo.compute(0, query.page, query.limit))

    @property
    def is_empty(self) -> bool:
        return not self.schools


# ============================================================================
# Authentication
# ============================================================================

@dataclass
class User:
    id: str
    email: str
    role: str = 'user'
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=str(data.get('id') or data.get('_id') or ''),
            email=str(data.get('email', '')),
            role=data.get('role') or 'user',
            is_active=bool(data.get('isActive', data.get('is_active', True))),
        )


@dataclass
class AuthResult:
    user: User
    token: str
    message: str = ''
