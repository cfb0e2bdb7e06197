"""Type aliases used across the proxyprint package."""

from typing import Literal, Tuple

# Color types
RGBColor = Tuple[int, int, int]  # RGB color in 0-255 range

# Guide options
CornerStyle = Literal["straight", "rounded"]

# Bleed extension strategy chosen for a card
EdgeStrategy = Literal["mirror", "replicate", "none"]

# Corner names, in the order they are inspected
Corner = Literal["top_left", "top_right", "bottom_left", "bottom_right"]
