"""
Tests for the repository layer (SQLite database per test).

These tests verify:
- Analysis lifecycle (analyzing -> completed / failed)
- Product and insight persistence with column limits
- Merchant scoping: foreign or missing records raise AccessDeniedError
"""

import pytest

from siteintel.database import (
    AccessDeniedError,
    AnalysisStatus,
    analysis_to_dict,
    complete_analysis,
    create_competitor_analysis,
    create_extracted_product,
    create_insight,
    create_website_analysis,
    delete_competitor,
    delete_website_analysis,
    fail_analysis,
    get_analysis_record,
    get_competitor,
    get_competitors_by_ids,
    get_insights,
    get_products,
    get_website_analysis,
    list_competitors,
    list_website_analyses,
    product_to_dict,
    update_competitor_pricing,
    update_site_quality,
)
from siteintel.analyzer.insights import generate_insights
from siteintel.models import ExtractedProduct, TargetKind


MERCHANT = 7
OTHER_MERCHANT = 8


class TestAnalysisLifecycle:

    def test_new_analysis_is_analyzing(self, db):
        analysis_id = create_website_analysis(MERCHANT, "https://desertdates.example.sa")

        analysis = get_website_analysis(analysis_id, MERCHANT)
        assert analysis.status == AnalysisStatus.ANALYZING
        assert analysis.overall_score == 0
        assert analysis.url == "https://desertdates.example.sa"

    def test_store_quality_and_complete(self, db, good_report):
        analysis_id = create_website_analysis(MERCHANT, good_report.url)

        update_site_quality(TargetKind.WEBSITE, analysis_id, good_report.quality_fields())
        complete_analysis(TargetKind.WEBSITE, analysis_id, [{"phase": "site_analysis", "status": "ok", "reason": None}])

        data = analysis_to_dict(get_website_analysis(analysis_id, MERCHANT))
        assert data["status"] == "completed"
        assert data["overall_score"] == 93
        assert data["industry"] == "food"
        assert data["meta_tags"]["og_title"] == "Desert Dates Store"
        assert data["phase_results"][0]["phase"] == "site_analysis"
        assert data["completed_at"] is not None

    def test_fail(self, db):
        competitor_id = create_competitor_analysis(MERCHANT, "Rival", "https://rival.example.sa")

        fail_analysis(TargetKind.COMPETITOR, competitor_id, "boom")

        competitor = get_competitor(competitor_id, MERCHANT)
        assert competitor.status == AnalysisStatus.FAILED
        assert competitor.error_message == "boom"

    def test_long_title_truncated(self, db):
        analysis_id = create_website_analysis(MERCHANT, "https://a.sa")
        update_site_quality(
            TargetKind.WEBSITE,
            analysis_id,
            {"title": "t" * 900, "industry": "i" * 300, "language": "en-US-x-storefront"},
        )

        record = get_analysis_record(TargetKind.WEBSITE, analysis_id)
        assert len(record.title) == 500
        assert len(record.industry) == 100
        assert record.language == "en-US-x-st"

    def test_missing_record_updates_are_ignored(self, db):
        update_site_quality(TargetKind.WEBSITE, 999, {"title": "x"})
        complete_analysis(TargetKind.WEBSITE, 999)
        assert get_analysis_record(TargetKind.WEBSITE, 999) is None

    def test_competitor_pricing(self, db):
        competitor_id = create_competitor_analysis(MERCHANT, "Rival", "https://rival.example.sa")

        update_competitor_pricing(competitor_id, 200.0, 100.0, 300.0, 3)

        data = analysis_to_dict(get_competitor(competitor_id, MERCHANT))
        assert (data["avg_price"], data["min_price"], data["max_price"], data["product_count"]) == (200.0, 100.0, 300.0, 3)
        assert data["name"] == "Rival"


class TestChildren:

    def test_products_are_truncated(self, db):
        analysis_id = create_website_analysis(MERCHANT, "https://a.sa")
        product = ExtractedProduct(
            name="n" * 800,
            description="d" * 5000,
            price=99.5,
            currency="SAUDI-RIYAL-LONG",
            image_url="https://cdn.example.sa/" + "i" * 600,
            tags=["gift"],
            confidence=140,
            source="ai",
        )

        create_extracted_product(TargetKind.WEBSITE, analysis_id, MERCHANT, product)

        stored = product_to_dict(get_products(TargetKind.WEBSITE, analysis_id)[0])
        assert len(stored["name"]) == 500
        assert len(stored["description"]) == 2000
        assert len(stored["currency"]) == 10
        assert len(stored["image_url"]) == 500
        assert stored["confidence"] == 100
        assert stored["tags"] == ["gift"]
        assert stored["price"] == 99.5

    def test_competitor_products_kept_apart(self, db, priced_products):
        analysis_id = create_website_analysis(MERCHANT, "https://a.sa")
        competitor_id = create_competitor_analysis(MERCHANT, "Rival", "https://rival.example.sa")

        for product in priced_products:
            create_extracted_product(TargetKind.COMPETITOR, competitor_id, MERCHANT, product)

        assert [p.name for p in get_products(TargetKind.COMPETITOR, competitor_id)] == ["Ajwa", "Sukkari", "Khalas"]
        assert get_products(TargetKind.WEBSITE, analysis_id) == []

    def test_insights(self, db, weak_report):
        analysis_id = create_website_analysis(MERCHANT, weak_report.url)
        insights = generate_insights(weak_report)

        for insight in insights:
            create_insight(analysis_id, MERCHANT, insight)

        stored = get_insights(analysis_id)
        assert len(stored) == len(insights)
        assert stored[0].priority == "critical"

    def test_delete_cascades(self, db, priced_products, weak_report):
        analysis_id = create_website_analysis(MERCHANT, "https://a.sa")
        create_extracted_product(TargetKind.WEBSITE, analysis_id, MERCHANT, priced_products[0])
        create_insight(analysis_id, MERCHANT, generate_insights(weak_report)[0])

        delete_website_analysis(analysis_id, MERCHANT)

        assert get_analysis_record(TargetKind.WEBSITE, analysis_id) is None
        assert get_products(TargetKind.WEBSITE, analysis_id) == []
        assert get_insights(analysis_id) == []


class TestMerchantScoping:

    def test_foreign_analysis_denied(self, db):
        analysis_id = create_website_analysis(MERCHANT, "https://a.sa")

        with pytest.raises(AccessDeniedError) as exc_info:
            get_website_analysis(analysis_id, OTHER_MERCHANT)

        assert exc_info.value.record_id == analysis_id
        assert exc_info.value.merchant_id == OTHER_MERCHANT

    def test_missing_analysis_denied(self, db):
        with pytest.raises(AccessDeniedError):
            get_website_analysis(12345, MERCHANT)

    def test_foreign_delete_denied(self, db):
        competitor_id = create_competitor_analysis(MERCHANT, "Rival", "https://rival.example.sa")

        with pytest.raises(AccessDeniedError):
            delete_competitor(competitor_id, OTHER_MERCHANT)

        assert get_competitor(competitor_id, MERCHANT).name == "Rival"

    def test_lists_are_scoped_and_newest_first(self, db):
        first = create_website_analysis(MERCHANT, "https://a.sa")
        second = create_website_analysis(MERCHANT, "https://b.sa")
        create_website_analysis(OTHER_MERCHANT, "https://c.sa")

        assert [a.id for a in list_website_analyses(MERCHANT)] == [second, first]
        assert list_competitors(MERCHANT) == []

    def test_competitors_by_ids_drops_foreign(self, db):
        mine = create_competitor_analysis(MERCHANT, "Mine", "https://mine.example.sa")
        theirs = create_competitor_analysis(OTHER_MERCHANT, "Theirs", "https://theirs.example.sa")

        found = get_competitors_by_ids([mine, theirs, 999], MERCHANT)

        assert [c.id for c in found] == [mine]
        assert get_competitors_by_ids([], MERCHANT) == []
