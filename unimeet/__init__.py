"""UniMeet: meeting scheduling and booking engine for university recruitment."""
