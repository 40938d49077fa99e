"""Domain rules: ownership, signups, default selection, raid and character lifecycles."""
