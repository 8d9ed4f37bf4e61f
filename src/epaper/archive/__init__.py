"""Edition bookkeeping and the HTML archive page."""
