"""Charter marketplace gateway - search, details and fleet queries.

Resolves a bearer token, issues marketplace calls through the resilient fetch
helper, reshapes and enriches results, and caches merged responses. The
service lives in ``services.marketplace.service``; this package stays
import-free because the fetch helper depends on its exceptions module.
"""
