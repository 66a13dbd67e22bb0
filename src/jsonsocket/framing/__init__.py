from jsonsocket.framing.decoder import FrameDecoder
from jsonsocket.framing.encoder import FrameEncoder

__all__ = ["FrameDecoder", "FrameEncoder"]
