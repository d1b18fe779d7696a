"""
Periodic execution of the mod update cycle.

- **update_cycle.py**: One fetch -> diff -> dispatch -> persist pass
- **update_scheduler.py**: Fixed-interval loop with mutual exclusion, overrun
  detection and per-cycle timeouts
"""
