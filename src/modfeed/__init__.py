"""
modfeed - Mod Portal Update Notifications for Discord

modfeed watches the mod portal for new mods and new releases and announces
them in the update channels of subscribed Discord servers.

Core Components:

- **Portal Client**: Fetches the full mod catalog (all pages as one atomic
  unit) and per-mod details such as changelogs and thumbnails
- **Mod Store**: Last observed state of every mod, committed once per cycle
  in a single transaction
- **Diff Engine**: Turns a fresh catalog into creation, release and metadata
  change events
- **Subscription Index**: Resolves which servers care about an event through
  their mod and author subscriptions
- **Notification Dispatcher**: Paced, retried, per-server ordered delivery of
  the resulting embeds
- **Update Scheduler**: Fixed-interval poll loop with overrun protection

Usage:
    from modfeed.main import main
    main()
"""

__version__ = "0.1.0"
