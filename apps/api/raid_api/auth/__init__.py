"""Authentication: token issuance/validation and the per-request gate."""
