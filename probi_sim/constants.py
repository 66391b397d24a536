DEFAULT_HAND_SIZE = 5
DEFAULT_DECK_SIZE = 40
DEFAULT_ITERATIONS = 1000
DEFAULT_MAX_BRANCHES = 10000

FILLER_CARD_NAME = "Empty Card"
FILLER_CARD_TAGS = ("Empty", "Blank", "Non Engine")
