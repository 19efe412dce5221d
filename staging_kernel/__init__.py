"""
AP Invoice Staging Kernel

Stages accounts-payable invoices for import into the ERP financial
subsystem:
- Header + line staging with store-assigned surrogate ids
- Process-flag lifecycle (N/V/E/P/I/X) with guarded cancellation
- Orchestration of the external validate -> transfer -> import procedure
- Scoped store connections with guaranteed release
"""

__version__ = "0.1.0"
