"""
Canonical work-order fields and the header synonym table.

The field list is closed and ordered. Its order is the display order of the
row table and the tie-break order used by the header resolver, so earlier
fields win when a header is ambiguous.

Adding a field means adding a FieldSpec here and its synonyms to
HEADER_SYNONYMS; nothing else in the resolver changes.
"""

from __future__ import annotations

from dataclasses import dataclass

TEXT = "text"
DATE = "date"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    title: str
    kind: str

    @property
    def is_date(self) -> bool:
        return self.kind == DATE


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("work_order", "Work Order", TEXT),
    FieldSpec("description", "Description", TEXT),
    FieldSpec("status", "Status", TEXT),
    FieldSpec("type", "Type", TEXT),
    FieldSpec("department", "Department", TEXT),
    FieldSpec("equipment", "Equipment", TEXT),
    FieldSpec("equipment_description", "Equipment Description", TEXT),
    FieldSpec("sched_start", "Sched. Start Date", DATE),
    FieldSpec("orig_due", "Original PM Due Date", DATE),
    FieldSpec("sched_end", "Sched. End Date", DATE),
    FieldSpec("assigned_to", "Assigned To", TEXT),
)

FIELD_BY_NAME: dict[str, FieldSpec] = {spec.name: spec for spec in FIELDS}
FIELD_NAMES: tuple[str, ...] = tuple(spec.name for spec in FIELDS)
TEXT_FIELDS: tuple[str, ...] = tuple(spec.name for spec in FIELDS if spec.kind == TEXT)
DATE_FIELDS: tuple[str, ...] = tuple(spec.name for spec in FIELDS if spec.kind == DATE)

# A row is kept when at least one of these is non-empty.
IDENTITY_FIELDS: tuple[str, ...] = (
    "work_order",
    "description",
    "equipment",
    "assigned_to",
    "sched_start",
    "orig_due",
    "sched_end",
)

# Fields that take an exact-value filter (status/type/department/assignee dropdowns).
CATEGORICAL_FIELDS: tuple[str, ...] = ("status", "type", "department", "assigned_to")

DEFAULT_DATE_FIELD = "sched_start"
ASSIGNEE_FIELD = "assigned_to"

# ---------------------------------------------------------------------------
# Synonym table
# ---------------------------------------------------------------------------
# Keys are already in normalized form (see headers.normalize_header): lower
# case, single spaces, underscores and hyphens turned into spaces. Periods
# are kept here; the resolver also builds a period-free view of the table.
# A spelling may appear only once; tests enforce it.
# ---------------------------------------------------------------------------

HEADER_SYNONYMS: dict[str, str] = {
    # work_order
    "work order":                  "work_order",
    "workorder":                   "work_order",
    "work order number":           "work_order",
    "work order no":               "work_order",
    "work order #":                "work_order",
    "work order id":               "work_order",
    "wo":                          "work_order",
    "wo #":                        "work_order",
    "wo#":                         "work_order",
    "wo number":                   "work_order",
    "wo no":                       "work_order",
    "wo id":                       "work_order",
    "wonum":                       "work_order",
    # description
    "description":                 "description",
    "wo description":              "description",
    "work order description":      "description",
    "work description":            "description",
    "job description":             "description",
    "task description":            "description",
    # status
    "status":                      "status",
    "wo status":                   "status",
    "work order status":           "status",
    # type
    "type":                        "type",
    "wo type":                     "type",
    "work order type":             "type",
    "work type":                   "type",
    "job type":                    "type",
    # department
    "department":                  "department",
    "dept":                        "department",
    "dept.":                       "department",
    "department name":             "department",
    "shop":                        "department",
    "craft":                       "department",
    # equipment
    "equipment":                   "equipment",
    "equipmentid":                 "equipment",
    "equipment id":                "equipment",
    "equipment number":            "equipment",
    "equipment no":                "equipment",
    "equipment #":                 "equipment",
    "asset":                       "equipment",
    "asset id":                    "equipment",
    "asset number":                "equipment",
    "asset no":                    "equipment",
    # equipment_description
    "equipmentdescription":        "equipment_description",
    "equipment description":       "equipment_description",
    "equipment desc":              "equipment_description",
    "equipment desc.":             "equipment_description",
    "asset description":           "equipment_description",
    "asset desc":                  "equipment_description",
    # sched_start
    "sched. start date":           "sched_start",
    "sched start date":            "sched_start",
    "sched. start":                "sched_start",
    "scheduled start date":        "sched_start",
    "scheduled start":             "sched_start",
    "sched start":                 "sched_start",
    "schedstart":                  "sched_start",
    "target start date":           "sched_start",
    "target start":                "sched_start",
    "start date":                  "sched_start",
    # orig_due
    "original pm due date":        "orig_due",
    "original pm due":             "orig_due",
    "orig. pm due date":           "orig_due",
    "orig pm due date":            "orig_due",
    "pm due date":                 "orig_due",
    "orig due":                    "orig_due",
    "original due date":           "orig_due",
    "due date":                    "orig_due",
    # sched_end
    "sched. end date":             "sched_end",
    "sched end date":              "sched_end",
    "sched. end":                  "sched_end",
    "scheduled end date":          "sched_end",
    "scheduled end":               "sched_end",
    "sched end":                   "sched_end",
    "schedend":                    "sched_end",
    "target finish date":          "sched_end",
    "target finish":               "sched_end",
    "end date":                    "sched_end",
    # assigned_to
    "assigned to":                 "assigned_to",
    "assignedto":                  "assigned_to",
    "assignee":                    "assigned_to",
    "assigned":                    "assigned_to",
    "assigned technician":         "assigned_to",
    "technician":                  "assigned_to",
    "lead craft":                  "assigned_to",
    "owner":                       "assigned_to",
}


def field_spec(name: str) -> FieldSpec:
    try:
        return FIELD_BY_NAME[name]
    except KeyError:
        raise ValueError(
            f"Unknown field '{name}'. Known fields: {', '.join(FIELD_NAMES)}"
        ) from None


def require_date_field(name: str) -> str:
    """Return ``name`` if it is a date-kind field, else raise ValueError."""
    spec = field_spec(name)
    if not spec.is_date:
        raise ValueError(
            f"'{name}' is not a date field. Date fields: {', '.join(DATE_FIELDS)}"
        )
    return name


def field_title(name: str) -> str:
    return field_spec(name).title
