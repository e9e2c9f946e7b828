"""Default clue policy: short, and no naming the color outright."""

from typing import Optional

MAX_CLUE_LENGTH = 64
MAX_CLUE_WORDS = 2

DIRECT_COLOR_WORDS = (
    'red', 'black', 'white', 'purple', 'orange', 'green', 'blue', 'yellow',
    'pink', 'brown', 'gray', 'grey', 'beige', 'tan', 'cyan', 'magenta',
    'teal', 'maroon', 'navy', 'azure', 'chartreuse', 'crimson', 'fuchsia',
    'indigo', 'ivory', 'lavender', 'mauve', 'ochre', 'peach', 'periwinkle',
    'salmon', 'sapphire', 'scarlet', 'turquoise', 'vermilion', 'violet',
    'viridian',
)

SHADE_WORDS = (
    'light', 'lighter', 'lightest', 'dark', 'darker', 'darkest',
    'bright', 'brighter', 'brightest', 'pale', 'paler', 'palest',
)


class WordListClueValidator:
    def __init__(self, color_words=DIRECT_COLOR_WORDS, shade_words=SHADE_WORDS,
                 max_words: int = MAX_CLUE_WORDS, max_length: int = MAX_CLUE_LENGTH):
        self.color_words = tuple(w.lower() for w in color_words)
        self.shade_words = frozenset(w.lower() for w in shade_words)
        self.max_words = max_words
        self.max_length = max_length

    def validate(self, clue: str) -> Optional[str]:
        """Return an error message, or None when the clue is acceptable."""
        if not isinstance(clue, str) or not clue.strip():
            return 'A clue is required'
        if len(clue) > self.max_length:
            return f'No more than {self.max_length} characters in your clue!'
        words = clue.lower().split()
        if len(words) > self.max_words:
            return f'Clues are at most {self.max_words} words'
        for word in words:
            if word in self.shade_words:
                return 'No simple shading words / comparisons allowed'
            # Substrings count too: "reddish" still names red
            if any(color in word for color in self.color_words):
                return 'No direct color words allowed!'
        return None
