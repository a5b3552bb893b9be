from fieldsketch.comms.event_bus import EventBus, drain

__all__ = ["EventBus", "drain"]
