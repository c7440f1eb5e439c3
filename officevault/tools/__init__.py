"""
Operational tools for OfficeVault.

- backup_cli: list/create/restore/cleanup/verify/sync/delete from a shell
"""
