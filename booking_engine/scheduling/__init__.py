from booking_engine.scheduling.slot_generator import ServiceWindow, divide_into_slots, generate
from booking_engine.scheduling.slot_service import SlotService, is_bookable

__all__ = ["ServiceWindow", "SlotService", "divide_into_slots", "generate", "is_bookable"]
