from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_rooms: int
    available_rooms: int
    booked_today: int
    weekly_bookings: int
