"""Business logic services for the goal-chat core."""
