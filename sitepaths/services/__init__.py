# Services operate on the path index. Each module exposes either plain
# functions taking a session, or a small class bound to a DatabaseManager.
