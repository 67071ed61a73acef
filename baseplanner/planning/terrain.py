class terrain:
    def __init__(self, name, symbol, walkable, code):
        self.name = name  # name of the terrain type
        self.symbol = symbol  # character used in world files and debug dumps
        self.walkable = walkable  # can units and roads cross this tile?
        self.code = code  # value stored in the snapshot terrain array

    def __repr__(self):
        return f"terrain({self.name!r})"


# define objects for terrain class
plains = terrain("Plains", ".", True, 0)
rough = terrain("Rough", "~", True, 1)
wall = terrain("Wall", "#", False, 2)

ALL_TERRAIN_TYPES = [plains, rough, wall]
TERRAIN_BY_SYMBOL = {t.symbol: t for t in ALL_TERRAIN_TYPES}
TERRAIN_BY_CODE = {t.code: t for t in ALL_TERRAIN_TYPES}
