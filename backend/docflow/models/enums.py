from enum import Enum


class Role(str, Enum):
    VENDOR = "vendor"
    INSPECTOR = "pic"
    EXECUTIVE = "direksi"


class DocumentKind(str, Enum):
    GOODS = "bapb"
    WORK = "bapp"


class GoodsStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    # No transition leads here any more; rows carrying it can still be approved or rejected.
    REVIEWED_PIC = "reviewed_pic"
    APPROVED = "approved_direksi"
    REJECTED = "rejected"


class InspectionStatus(str, Enum):
    MATCHES = "sesuai"
    MISMATCH = "tidak_sesuai"
    UNCHECKED = "belum_diperiksa"
