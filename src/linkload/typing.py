from typing import Annotated

URI = Annotated[str, "URI"]
