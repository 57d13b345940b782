from fastapi import Request

from exceptions import ImgfitError
from processor.transform import Processor


def get_processor(request: Request) -> Processor:
    """Processor created in the app lifespan.

    Raises:
        ImgfitError: If the app was started without a processor.
    """
    processor = getattr(request.app.state, "processor", None)
    if processor is None:
        raise ImgfitError("Image processor is not initialized")
    return processor
