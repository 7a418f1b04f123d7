"""Spaced-repetition scheduling engine for vocabulary learning."""
