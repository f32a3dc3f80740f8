from pathlib import Path
from dotenv import load_dotenv
import os

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# JWT Config
JWT_SECRET = os.environ.get('JWT_SECRET', 'works_portal_secret_key')
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.environ.get('ACCESS_TOKEN_EXPIRE_HOURS', 24))

# RBAC Constants
MODULES = [
    "dashboard", "requests", "approvals", "media",
    "geography", "complaint_types", "users",
    "efiling", "efiling_admin"
]
PERMISSION_TYPES = ["view", "create", "edit", "delete"]

# Roles that get every permission without a role lookup
ADMIN_ROLES = ["admin", "manager"]


def _perms(view=False, create=False, edit=False, delete=False):
    return {"view": view, "create": create, "edit": edit, "delete": delete}


_ALL = _perms(True, True, True, True)
_VIEW = _perms(view=True)
_APPROVER = {
    "dashboard": _VIEW,
    "requests": _VIEW,
    "approvals": _perms(view=True, edit=True),
    "media": _VIEW,
    "geography": _VIEW,
    "complaint_types": _VIEW,
    "efiling": _perms(view=True, create=True, edit=True),
}
_AGENT = {
    "requests": _perms(view=True, create=True, edit=True),
    "media": _perms(view=True, create=True, edit=True),
    "geography": _VIEW,
    "complaint_types": _VIEW,
}

# Seeded on startup for every non-admin role that does not exist yet
DEFAULT_ROLE_PERMISSIONS = {
    "manager": {m: _ALL for m in MODULES},
    "ceo": _APPROVER,
    "coo": _APPROVER,
    "ce": _APPROVER,
    "assistant": {
        "dashboard": _VIEW,
        "requests": _perms(view=True, create=True, edit=True),
        "media": _perms(view=True, create=True),
        "geography": _VIEW,
        "complaint_types": _VIEW,
        "efiling": _perms(view=True, create=True, edit=True),
    },
    "executive_engineer": _AGENT,
    "contractor": _AGENT,
    "sm_agent": {
        "requests": _VIEW,
        "media": _ALL,
        "geography": _VIEW,
        "complaint_types": _VIEW,
    },
}

# File Upload
UPLOAD_DIR = Path(os.environ.get('UPLOAD_DIR', ROOT_DIR / "uploads"))
CHUNK_TEMP_DIR = UPLOAD_DIR / "temp" / "chunks"
EXPORT_DIR = ROOT_DIR / "exports"
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
CHUNK_TEMP_DIR.mkdir(parents=True, exist_ok=True)
EXPORT_DIR.mkdir(parents=True, exist_ok=True)

MEDIA_DIRS = {
    "before_content": "before-images",
    "image": "images",
    "video": "videos",
    "final_video": "final-videos",
}
EFILING_ATTACHMENT_DIR = "efiling/attachments"
SIGNATURE_DIR = "signatures"

ALLOWED_IMAGE_TYPES = {'image/jpeg', 'image/png', 'image/gif', 'image/webp'}
ALLOWED_VIDEO_TYPES = {
    'video/mp4', 'video/mkv', 'video/webm', 'video/avi',
    'video/mov', 'video/m4v', 'video/quicktime'
}
ALLOWED_DOCUMENT_TYPES = {
    'application/pdf', 'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/plain',
}
BLOCKED_EXTENSIONS = {'.exe', '.bat', '.cmd', '.com', '.pif', '.scr', '.vbs', '.js'}

MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5MB
MAX_DOCUMENT_SIZE = 5 * 1024 * 1024  # 5MB
MAX_VIDEO_SIZE = 1024 * 1024 * 1024  # 1GB
CHUNK_SIZE_TOLERANCE = 1024  # bytes

# Messaging
WHATSAPP_API_URL = os.environ.get('WHATSAPP_API_URL', '')
WHATSAPP_SECRET_KEY = os.environ.get('WHATSAPP_SECRET_KEY', '')
