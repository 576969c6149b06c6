"""
Coverwall - Album-art wallpaper renderer.

Turns the artwork of the currently playing track, plus a bounded history of
previously seen artwork, into one finished wallpaper per display in one of
eight visual styles.
"""
