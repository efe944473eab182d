"""
Module: resale_engines
Responsibility:
    Re-exports the pure calculation engines: order profit, document
    numbering, invoice aggregation, statement matching, khata balances and
    order KPIs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import
    resale_kernel.domain, resale_kernel.db.types and logging only.  MUST NOT
    import resale_kernel.store or resale_kernel.services.

Invariants enforced:
    - Engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for money.
    - Identical inputs produce identical outputs.
"""

from resale_engines.invoice_aggregation import (
    DEFAULT_TAX_RATE,
    InvoiceOrderLine,
    InvoiceTotals,
    aggregate_invoice,
    is_billable,
    select_billable_orders,
    status_breakdown,
)
from resale_engines.invoice_matching import (
    PROFIT_TOLERANCE,
    MatchLine,
    MatchOutcome,
    MatchReport,
    StatementRow,
    SystemOrderView,
    classify_row,
    match_statement,
)
from resale_engines.ledger_balance import (
    BalancedLine,
    BillingDashboard,
    CustomerBalance,
    LedgerLine,
    LedgerLineKind,
    LedgerStatement,
    LedgerTotals,
    PartyStats,
    build_ledger_statement,
    merge_ledger_lines,
    normalize_party,
    party_stats,
    summarize_customers,
)
from resale_engines.numbering import (
    next_invoice_number,
    next_ledger_bill_number,
    next_reference_number,
)
from resale_engines.order_kpis import OrderKpis, compute_order_kpis
from resale_engines.profit import (
    ProfitCheck,
    calculate_order_profit,
    check_profit,
    display_profit,
    format_amount,
    parse_product_codes,
)
from resale_engines.tracer import traced_engine

__all__ = [
    # Profit
    "calculate_order_profit",
    "display_profit",
    "format_amount",
    "parse_product_codes",
    "check_profit",
    "ProfitCheck",
    # Numbering
    "next_reference_number",
    "next_invoice_number",
    "next_ledger_bill_number",
    # Invoice aggregation
    "DEFAULT_TAX_RATE",
    "InvoiceOrderLine",
    "InvoiceTotals",
    "aggregate_invoice",
    "is_billable",
    "select_billable_orders",
    "status_breakdown",
    # Matching
    "PROFIT_TOLERANCE",
    "MatchOutcome",
    "MatchLine",
    "MatchReport",
    "StatementRow",
    "SystemOrderView",
    "classify_row",
    "match_statement",
    # Ledger
    "LedgerLineKind",
    "LedgerLine",
    "BalancedLine",
    "LedgerTotals",
    "LedgerStatement",
    "merge_ledger_lines",
    "build_ledger_statement",
    "normalize_party",
    "CustomerBalance",
    "BillingDashboard",
    "summarize_customers",
    "PartyStats",
    "party_stats",
    # KPIs
    "OrderKpis",
    "compute_order_kpis",
    # Tracing
    "traced_engine",
]
