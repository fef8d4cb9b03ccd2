"""Admin access checks for operator endpoints"""
import os


def get_admin_ids():
    """Clerk user ids listed in ADMIN_CLERK_USER_IDS (comma-separated)"""
    admin_ids = os.getenv('ADMIN_CLERK_USER_IDS', '')
    return [x.strip() for x in admin_ids.split(',') if x.strip()]


def is_admin(clerk_user_id: str) -> bool:
    """Check if user is admin; with no ADMIN_CLERK_USER_IDS configured nobody is"""
    if not clerk_user_id:
        return False
    return clerk_user_id in get_admin_ids()
