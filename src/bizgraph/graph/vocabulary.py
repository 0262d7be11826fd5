"""
Node types and relation types used by the mirror.

Node types are an open vocabulary: these are the ones the migration knows how
to produce, but GraphService accepts any string.
"""

# Node types
ENTERPRISE = "enterprise"
FACILITY = "facility"
BUSINESS_UNIT = "business_unit"
DEPARTMENT = "department"
BUSINESS_CANVAS = "business_canvas"
PROCESS = "process"
CRITICAL_CONTROL = "critical_control"
RISK = "risk"

MIRRORED_NODE_TYPES = [
    ENTERPRISE,
    FACILITY,
    BUSINESS_UNIT,
    DEPARTMENT,
    BUSINESS_CANVAS,
    PROCESS,
    CRITICAL_CONTROL,
]

# Relation types. Each one names a direction and a verb; they are not
# interchangeable even where two pairings share a verb.
OPERATES = "operates"        # enterprise -> facility
CONTAINS = "contains"        # facility -> business unit
MANAGES = "manages"          # business unit -> department
OWNS = "owns"                # enterprise -> business unit
STRATEGIZES = "strategizes"  # enterprise -> business canvas
EXECUTES = "executes"        # business unit -> process
IMPLEMENTS = "implements"    # department -> process, process -> critical control
ENABLES = "enables"          # business canvas -> process (same enterprise)

RELATION_TYPES = [
    OPERATES,
    CONTAINS,
    MANAGES,
    OWNS,
    STRATEGIZES,
    EXECUTES,
    IMPLEMENTS,
    ENABLES,
]
