"""SQLite storage of validator data and enabled modules."""