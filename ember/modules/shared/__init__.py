"""
Shared Module

Domain-level foundations for every engine:
- Outcome / FailureReason / FailureKind
- Domain exceptions (EmberDomainException hierarchy)
- BaseService (logging and failure helpers)
- Formulas (leveling curve, daily reward, tax, repair cost, craft rate)

No infrastructure dependencies beyond configuration and logging.
"""
