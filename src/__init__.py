"""OrderDesk: order workflow dashboard core."""
