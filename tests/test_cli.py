import argparse
import unittest

from cvewatch.__main__ import parse_args, product_arg
from cvewatch.app import products_from_tree
from cvewatch.core.model import DependencyRecord, FolderNode, ManifestFile, Product


class TestCommandLine(unittest.TestCase):

    def test_product_with_keyword(self):
        self.assertEqual(product_arg("Log4j=apache log4j"), Product(id="log4j", name="Log4j", keyword="apache log4j"))
        self.assertEqual(product_arg("django").search_term, "django")

    def test_empty_product_is_rejected(self):
        with self.assertRaises(argparse.ArgumentTypeError):
            product_arg("=keyword")

    def test_defaults(self):
        args = parse_args(["~/code"])

        self.assertEqual(args.directory, "~/code")
        self.assertEqual(args.products, [])
        self.assertEqual(args.results, 10)
        self.assertEqual(args.poll_interval, 30)
        self.assertTrue(args.notifications)
        self.assertIsNone(args.api_key)
        self.assertFalse(args.verbose)

    def test_options(self):
        args = parse_args([
            "/work", "-p", "openssl", "--product", "spring=spring framework",
            "--results", "20", "--poll-interval", "5", "--no-notifications", "-v",
        ])

        self.assertEqual([p.search_term for p in args.products], ["openssl", "spring framework"])
        self.assertEqual(args.results, 20)
        self.assertEqual(args.poll_interval, 5)
        self.assertFalse(args.notifications)
        self.assertTrue(args.verbose)


class TestProductsFromTree(unittest.TestCase):

    def test_distinct_names_in_tree_order(self):
        child = FolderNode("api", "/p/api", [ManifestFile("requirements.txt", "/p/api/requirements.txt", "pypi", [
            DependencyRecord("Flask", "2.0.1", "pypi"),
            DependencyRecord("requests", "latest", "pypi"),
        ])])
        root = FolderNode("p", "/p", [ManifestFile("package.json", "/p/package.json", "npm", [
            DependencyRecord("flask", "1.0.0", "npm"),
            DependencyRecord("lodash", "4.17.21", "npm"),
        ])], [child])

        products = products_from_tree(root)

        self.assertEqual([p.id for p in products], ["flask", "lodash", "requests"])
        self.assertEqual(products_from_tree(root, limit=2), products[:2])
        self.assertEqual(products_from_tree(None), [])
