"""Services behind WorktreeKeeper: resolution, bootstrap, reconciliation and discovery."""
