"""
Update detection and notification fan-out.

- **diff_engine.py**: Catalog vs. store comparison producing ChangeEvents
- **subscription_index.py**: Event -> interested communities resolution
- **message_formatter.py**: Per-community embed rendering
- **messaging_platform.py**: Send abstraction and its py-cord implementation
- **rate_budget.py**: Global outbound pacing shared by every send
- **dispatcher.py**: Retried, ordered, partial-failure tolerant delivery
"""
