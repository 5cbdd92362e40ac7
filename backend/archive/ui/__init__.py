"""Per-client UI state: view selectors, toasts, modals and workspaces."""
