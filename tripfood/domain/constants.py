"""Domain business rules and constants."""

from typing import Final

# Trip
TRIP_MIN_NAME_LENGTH: Final = 3
TRIP_MAX_NAME_LENGTH: Final = 100
TRIP_MAX_DESCRIPTION_LENGTH: Final = 500

# Participant
PARTICIPANT_MIN_NAME_LENGTH: Final = 2
PARTICIPANT_MAX_NAME_LENGTH: Final = 100
PARTICIPANT_MAX_NOTES_LENGTH: Final = 500

# Product
PRODUCT_MIN_NAME_LENGTH: Final = 2
PRODUCT_MAX_NAME_LENGTH: Final = 100
PRODUCT_MAX_NOTES_LENGTH: Final = 500
PRODUCT_MIN_QUANTITY: Final = 0.01
PRODUCT_MAX_QUANTITY: Final = 1000

# Consumption
CONSUMPTION_MIN_QUANTITY: Final = 0.01
CONSUMPTION_MAX_QUANTITY: Final = 10000
