"""In-page JS snippets evaluated through the driver.

Playwright hands exactly one argument to a page function, so every script
receives its parameters as a single array and destructures it.
"""

CLICK_JS = """([selector]) => {
  const element = document.querySelector(selector);
  const event = document.createEvent("MouseEvent");
  event.initEvent("click", true, false);
  element.dispatchEvent(event);
}"""

TYPE_JS = """([selector, text]) => {
  const element = document.querySelector(selector);
  element.value = text;
}"""

ELEMENT_PRESENT_JS = """([selector]) => {
  const element = document.querySelector(selector);
  return element ? true : false;
}"""

PAGE_UNLOADED_JS = '() => document.readyState !== "complete"'

PAGE_LOADED_JS = '() => document.readyState === "complete"'
