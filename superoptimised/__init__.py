"""Superoptimised questionnaire and voting backend."""
