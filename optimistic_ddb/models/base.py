"""
Base Model for Table Items

Item shapes are pydantic models. Subclassing TableItem gives a model the
behaviour the commit engine relies on:

- Unknown attributes are rejected (``extra='forbid'``), so a stored item
  carrying attributes the model does not declare fails validation instead
  of silently losing data on the next update.
- ``None`` means "attribute absent": it is left out of the stored
  representation, and an update REMOVEs the attribute. Optional attributes
  should therefore default to ``None``.
- The version attribute used for optimistic locking is never part of the
  model. It lives in the client's tracking metadata.

## Usage Example

```python
class BlogPost(TableItem):
    id: str
    name: str
    content: str
    numComments: int

blog_posts = Table(
    table_name="BlogPosts",
    item_shape=BlogPost,
    partition_key="id",
)
```
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict

from ..utils import from_store_value, to_store_value


class TableItem(BaseModel):
    """
    Base class for item shapes stored in a Table.

    Items handed out by OptimisticDdbClient are instances of the table's item
    shape and are mutated in place before being committed.
    """

    model_config = ConfigDict(extra='forbid')

    def to_attributes(self) -> Dict[str, Any]:
        """
        Convert the item to its stored representation.

        - None values are omitted (absent attribute)
        - datetime -> ISO string, as written to DynamoDB
        - nested models and collections are converted recursively

        Example:
            post.to_attributes()
            # {'id': 'post-1', 'name': 'Hello', 'content': '...', 'numComments': 0}
        """
        return from_store_value(to_store_value(self.model_dump(exclude_none=True)))
