from typing import Dict, List, Mapping, NamedTuple, Sequence, TypedDict, Union


class Point(TypedDict):
    x: float   # 0..1 from the left edge
    y: float   # 0..1 from the top edge


class PathAnnotation(TypedDict, total=False):
    type: str              # "path"
    points: List[Point]
    color: Union[str, Dict[str, float]]   # {"r","g","b"} or its JSON string
    opacity: float         # default 0.5
    strokeWidth: float     # default 5


class TextAnnotation(TypedDict, total=False):
    type: str              # "text"
    x: float
    y: float
    text: str
    size: float            # default 12
    color: Union[str, Dict[str, float]]


Annotation = Union[PathAnnotation, TextAnnotation]

# Page keys arrive as ints or, from stored JSON, as digit strings ("1", "2", ...)
AnnotationsByPage = Mapping[Union[int, str], Sequence[Annotation]]


class ExtractedMetadata(NamedTuple):
    title: str = ""
    composer: str = ""
    raw_text: str = ""

    def to_json_dict(self) -> Dict[str, str]:
        return {"title": self.title, "composer": self.composer, "rawText": self.raw_text}


class AnnotationFailure(TypedDict):
    page: int
    index: int      # position within the page's annotation list
    type: str
    error: str
