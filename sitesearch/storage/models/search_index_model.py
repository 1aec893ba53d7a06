from tortoise import fields, models


class SearchIndex(models.Model):
    """
    Inverted index posting: how many times a lemma occurs on a page.
    """
    id = fields.IntField(pk=True)

    page = fields.ForeignKeyField(
        "models.Page",
        related_name="postings",
        on_delete=fields.CASCADE,
    )
    lemma = fields.ForeignKeyField(
        "models.Lemma",
        related_name="postings",
        on_delete=fields.CASCADE,
    )
    rank = fields.FloatField(source_field="rank_value")

    class Meta:
        table = "search_index"
        unique_together = (("page", "lemma"),)
