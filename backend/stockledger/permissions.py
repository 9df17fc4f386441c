"""
Permission System Constants and Definitions

WHY: Centralized permission definitions ensure consistency across the application.
All permission names and role mappings defined here.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Default role mappings follow principle of least privilege
- Admin has all permissions by default
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    USERS = "USERS"
    ITEMS = "ITEMS"
    TRANSACTIONS = "TRANSACTIONS"
    REPORTS = "REPORTS"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (name, description, category)
PERMISSION_DEFINITIONS = [
    ("manage_users", "Create, edit and deactivate user accounts", PermissionCategory.USERS),

    ("create_item", "Add items to the catalog", PermissionCategory.ITEMS),
    ("update_item", "Edit catalog details of an item", PermissionCategory.ITEMS),
    ("delete_item", "Remove items that have no transaction history", PermissionCategory.ITEMS),
    ("read_item", "View the full catalog including cost prices", PermissionCategory.ITEMS),
    ("read_item_for_sale", "View in-stock items offered in the shop", PermissionCategory.ITEMS),

    ("create_sale_transaction", "Buy items through the shop", PermissionCategory.TRANSACTIONS),
    ("create_transaction", "Record stock adjustments", PermissionCategory.TRANSACTIONS),
    ("read_transactions", "View every transaction", PermissionCategory.TRANSACTIONS),
    ("read_own_transactions", "View transactions the user recorded", PermissionCategory.TRANSACTIONS),
    ("verify_blockchain", "Check a transaction against its integrity digest", PermissionCategory.TRANSACTIONS),

    ("view_reports", "View inventory and transaction reports", PermissionCategory.REPORTS),
    ("export_reports", "Download reports as CSV", PermissionCategory.REPORTS),
]


# =============================================================================
# DEFAULT ROLES
# =============================================================================

# (name, description)
DEFAULT_ROLES = [
    ("Admin", "Full access"),
    ("Manager", "Runs inventory and reports"),
    ("Viewer", "Read-only catalog access"),
    ("Buyer", "Shop customer"),
]


def get_all_permission_names():
    """Get list of all permission names."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


# WHY these mappings:
# - Admin: everything
# - Manager: day-to-day inventory and reporting, no user admin or deletes
# - Viewer: catalog lookups and their own history
# - Buyer: shop only
DEFAULT_ROLE_PERMISSIONS = {
    "Admin": get_all_permission_names(),

    "Manager": [
        name for name in get_all_permission_names()
        if name not in {"manage_users", "delete_item"}
    ],

    "Viewer": [
        "read_item",
        "read_item_for_sale",
        "read_own_transactions",
    ],

    "Buyer": [
        "read_item_for_sale",
        "create_sale_transaction",
        "read_own_transactions",
    ],
}
