"""
Pure calculation engines for the tax ledger.

Nothing in this package touches a session, a clock or the filesystem:
- entry_decision: write/skip decision for an invoice against its last snapshot
- metadata_builders: TaxSummary / TaxDetail shapes keyed by TaxReportStatus
- regional: country-specific tax column decomposition for reports
"""
