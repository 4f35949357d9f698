"""
Manufacturing Modules.

One package per planning entity, each holding:
- Domain models (frozen dataclasses)
- Repository contracts with in-memory and SQLAlchemy implementations
- ORM models
- Configuration schemas
- A manager service

Modules:
- bom: Bills of materials, versioning, explosion, cycle checks
- routing: Operation sequences, lead time, cost, capacity requirement
- work_center: Production resources, calendar, overtime, alternates
- work_order: Execution state machine, material issue, reporting
- mrp: Material requirement and planned order records, MRP config
- capacity: Loads, profiles and resolution suggestions, capacity config
- forecasting: Demand forecasts with ML-first, history-second sourcing
"""
