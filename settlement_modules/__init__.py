"""
Settlement Modules.

Thin layers over the settlement kernel and engines:

- sources: purchase-order / packing-list snapshots, ORM, and the
  ``SourceRecordGateway`` write-through boundary
- payments: payment request models, workflow, service, and the
  payment-history selector

Package ``__init__`` files export DTOs and workflows only; import services
from their modules (``settlement_modules.payments.service``).
"""
