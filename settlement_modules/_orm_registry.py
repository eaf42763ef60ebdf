"""
Import every settlement ORM module so ``Base.metadata`` is complete.

``create_tables()`` calls ``import_all_orm_models()`` before ``create_all``.
"""


def import_all_orm_models() -> None:
    import settlement_kernel.services.sequence_service  # noqa: F401
    import settlement_modules.payments.orm  # noqa: F401
    import settlement_modules.sources.orm  # noqa: F401
