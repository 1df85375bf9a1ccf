"""External services consumed by hydroclip."""
