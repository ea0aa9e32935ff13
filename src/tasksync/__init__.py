"""tasksync: two-way priority task sync between notes and the daily note."""

__version__ = "0.1.0"
