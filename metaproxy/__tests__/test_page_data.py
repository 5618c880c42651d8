"""
Tests for the page-data JSON merge and the nested helpers behind it.
"""
import unittest
import sys
import os
import copy

# Add parent directory to path to import metaproxy modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from metaproxy.features.proxy.services.metadata import MetadataRecord
from metaproxy.features.proxy.services.page_data import is_page_data_path, merge_page_data
from metaproxy.utils.nested import set_nested, with_defaults

DOCUMENT = {
    "id": "b5a1c2d3-0000-4000-8000-000000000001",
    "page": {
        "name": "Experience",
        "title": {"en": "Old", "fr": "Vieux"},
        "meta": {"desc": {"en": "Old desc"}, "robots": "noindex"},
        "socialTitle": {},
        "metaImage": "old.png",
        "sections": [1, 2, 3],
    },
    "variables": {"a": 1},
}


class TestNestedHelpers(unittest.TestCase):

    def test_with_defaults_creates_missing_objects(self):
        result = with_defaults({'other': True}, ['page.meta.desc', 'page.title'])
        self.assertEqual(result, {'other': True, 'page': {'meta': {'desc': {}}, 'title': {}}})

    def test_with_defaults_does_not_mutate_input(self):
        original = copy.deepcopy(DOCUMENT)
        result = with_defaults(DOCUMENT, ['page.meta.keywords'])
        set_nested(result, 'page.title.en', 'changed')
        self.assertEqual(DOCUMENT, original)
        self.assertEqual(result['page']['meta']['keywords'], {})

    def test_with_defaults_replaces_non_object_parents(self):
        result = with_defaults({'page': None}, ['page.title'])
        self.assertEqual(result, {'page': {'title': {}}})


class TestMergePageData(unittest.TestCase):

    def test_title_sets_title_and_social_title(self):
        merged = merge_page_data(DOCUMENT, MetadataRecord(title='Exp'))
        self.assertEqual(merged['page']['title'], {'en': 'Exp', 'fr': 'Vieux'})
        self.assertEqual(merged['page']['socialTitle'], {'en': 'Exp'})
        self.assertEqual(merged['page']['meta']['desc'], {'en': 'Old desc'})
        self.assertEqual(merged['page']['metaImage'], 'old.png')

    def test_all_fields(self):
        metadata = MetadataRecord(title='T', description='D', image='I.png', keywords='K')
        merged = merge_page_data(DOCUMENT, metadata)
        page = merged['page']
        self.assertEqual(page['title']['en'], 'T')
        self.assertEqual(page['socialTitle']['en'], 'T')
        self.assertEqual(page['meta']['desc']['en'], 'D')
        self.assertEqual(page['socialDesc']['en'], 'D')
        self.assertEqual(page['meta']['keywords']['en'], 'K')
        self.assertEqual(page['metaImage'], 'I.png')

    def test_unrelated_keys_survive(self):
        merged = merge_page_data(DOCUMENT, MetadataRecord(title='T', description='D', image='I', keywords='K'))
        self.assertEqual(merged['id'], DOCUMENT['id'])
        self.assertEqual(merged['variables'], {'a': 1})
        self.assertEqual(merged['page']['name'], 'Experience')
        self.assertEqual(merged['page']['sections'], [1, 2, 3])
        self.assertEqual(merged['page']['meta']['robots'], 'noindex')

    def test_empty_metadata_leaves_targets_untouched(self):
        merged = merge_page_data(DOCUMENT, MetadataRecord())
        self.assertEqual(merged["page"]["title"], DOCUMENT["page"]["title"])
        self.assertEqual(merged["page"]["meta"]["desc"], DOCUMENT["page"]["meta"]["desc"])
        self.assertEqual(merged["page"]["socialTitle"], DOCUMENT["page"]["socialTitle"])
        self.assertEqual(merged["page"]["metaImage"], DOCUMENT["page"]["metaImage"])
        self.assertEqual(merged["page"]["meta"]["keywords"], {})

    def test_input_document_is_not_mutated(self):
        original = copy.deepcopy(DOCUMENT)
        merge_page_data(DOCUMENT, MetadataRecord(title='T', keywords='K'))
        self.assertEqual(DOCUMENT, original)

    def test_document_without_page(self):
        merged = merge_page_data({'v': 1}, MetadataRecord(image='I'))
        self.assertEqual(merged['v'], 1)
        self.assertEqual(merged['page']['metaImage'], 'I')
        self.assertEqual(merged['page']['meta'], {'desc': {}, 'keywords': {}})


class TestPageDataPath(unittest.TestCase):

    def test_uuid_json_under_public_data(self):
        self.assertTrue(is_page_data_path('/public/data/0b8d2c4e-1f03-4744-8df9-683da1a67780.json'))

    def test_other_paths(self):
        self.assertFalse(is_page_data_path('/public/data/not-a-uuid.json'))
        self.assertFalse(is_page_data_path('/public/data/0b8d2c4e-1f03-4744-8df9-683da1a67780.js'))
        self.assertFalse(is_page_data_path('/public/data/0B8D2C4E-1F03-4744-8DF9-683DA1A67780.json'))
        self.assertFalse(is_page_data_path('/experience/foo'))


if __name__ == '__main__':
    unittest.main()
