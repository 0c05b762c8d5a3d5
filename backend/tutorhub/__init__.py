"""TutorHub scheduling engine."""
