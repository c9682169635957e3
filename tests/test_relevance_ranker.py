from catalog_search.services.relevance_ranker import rank_records, score_record


def product(sku, name="", description="", **extra):
    return {"sku": sku, "product_name": name, "description": description, **extra}


class TestScoreRecord:
    def test_identifier_match_outranks_description_mention(self):
        by_identifier = product("PS 870 Class B", name="Sealant")
        by_description = product("P-100", name="Primer", description="Use before applying PS 870")

        assert score_record(by_identifier, ["PS 870"]) > score_record(by_description, ["PS 870"])

    def test_field_bonuses_add_up(self):
        record = product("X-1", name="Firewall sealant", description="firewall grade", application="Firewall")

        # 3 occurrences * 2 + name 30 + application 20 + description 10
        assert score_record(record, ["firewall"]) == 66

    def test_short_keywords_are_ignored(self):
        assert score_record(product("AB-1"), ["ab"]) == 0


class TestRankRecords:
    def test_no_keywords_keeps_order_and_size(self):
        records = [product(f"P-{index}") for index in range(60)]

        assert rank_records(records, []) is records

    def test_sorted_by_descending_score(self):
        primer = product("P-100", description="primer for PS 870")
        sealant = product("PS 870 Class B", name="PS 870 Sealant")
        other = product("PR-1422")

        ranked = rank_records([other, primer, sealant], ["PS 870"])

        assert ranked == [sealant, primer, other]

    def test_ties_keep_original_order(self):
        records = [product("A-1"), product("B-2"), product("C-3")]

        assert rank_records(records, ["firewall"]) == records

    def test_keeps_top_fifty(self):
        records = [product(f"P-{index}") for index in range(80)]
        records.append(product("PS 870 Class B"))

        ranked = rank_records(records, ["PS 870"])

        assert len(ranked) == 50
        assert ranked[0]["sku"] == "PS 870 Class B"
